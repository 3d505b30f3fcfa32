# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""Command line tools for the GenAI key rotator."""
