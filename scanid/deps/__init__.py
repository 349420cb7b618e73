# Marks `scanid.deps` as a package so `from scanid.deps.auth import require_api_key` resolves.
