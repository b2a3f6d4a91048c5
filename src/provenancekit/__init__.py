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

"""SLSA build provenance predicates backed by a verified CI OIDC token.

The pipeline requests the job's identity token, verifies it against the
issuer's published keys, and maps the verified claims into a
``https://slsa.dev/provenance/v1`` predicate.
"""

__version__ = '0.1.0'
