"""
Building blocks of the hook loader.

- paths: canonical module paths
- fetch: HTTP retrieval with extension fallback
- transform: import/export dialect lowering and strategy selection
- virtualization: reserved import specifiers backed by the context
- context: the capabilities handed to hook code
- elements: UI element descriptors
- diagnostics / errors: phase-tagged failures
- self_logger: the loader's own TSV log

None of these hold loader state. The cache lives in runtime.hook_loader.
"""
