"""
Integration tests for confprobe.

These tests drive real cargo and rustc against a throwaway crate and are
skipped when the toolchain is not installed.
"""
