# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Test suite for ApiAlchemy.

- Unit tests for the type registry, attribute store and declarations
- Relation resolution and persistence against an in-memory transport
- The httpx connection against ``httpx.MockTransport``
"""
