# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Shared test fakes for provenancekit.

Provides a fake OIDC issuer (RSA key, signed tokens, discovery and JWKS
documents) and a recording output sink so that individual test modules
don't need to duplicate boilerplate.

Usage::

    from tests._fakes import FakeOIDCClient, RecordingSink, base_claims, sign_token

    client = FakeOIDCClient(token=sign_token(base_claims()))
"""

from tests._fakes._oidc import (
    AUDIENCE as AUDIENCE,
    DEFAULT_ISSUER as DEFAULT_ISSUER,
    KID as KID,
    FakeOIDCClient as FakeOIDCClient,
    base_claims as base_claims,
    jwks_for as jwks_for,
    private_key as private_key,
    public_jwk as public_jwk,
    sign_token as sign_token,
)
from tests._fakes._sink import RecordingSink as RecordingSink

__all__ = [
    'AUDIENCE',
    'DEFAULT_ISSUER',
    'KID',
    'FakeOIDCClient',
    'RecordingSink',
    'base_claims',
    'jwks_for',
    'private_key',
    'public_jwk',
    'sign_token',
]
