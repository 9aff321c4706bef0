"""Command line interface built with Click and Rich."""
