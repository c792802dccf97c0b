from __future__ import annotations

# Toolchain
CARGO_BUILD_TIMEOUT_SECONDS = 90 * 60.0
RUSTUP_TIMEOUT_SECONDS = 60.0
TOOLCHAIN_INSTALL_TIMEOUT_SECONDS = 20 * 60.0

# Pre-build prep (package manager installs)
PREP_TIMEOUT_SECONDS = 15 * 60.0

# Release store
GH_TRANSFER_TIMEOUT_SECONDS = 15 * 60.0
