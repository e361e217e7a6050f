"""Isolated validation of untrusted generated artifacts.

Kept import-free: the process worker loads ``cogen.sandbox.worker`` in a
fresh interpreter and must not pull in the rest of the package.
"""
