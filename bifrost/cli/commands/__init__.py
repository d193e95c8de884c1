# ABOUTME: Command implementations for the Bifrost CLI
# ABOUTME: One module per command group (connect, auth, profile, version)
