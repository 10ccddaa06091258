"""
Generators — produce site source files from the website document.

Each generator module exposes a ``generate()`` function that returns
a list of ``GeneratedFile`` instances.
"""
