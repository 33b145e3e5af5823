"""The `glmpt` command-line entry point."""
