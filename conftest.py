"""Repository-root conftest: puts the repo root on sys.path so `tools` imports."""
