# settler/kernel/kernel_version.py
# Kernel version constant. Single authoritative definition.
# Stamped into every EvidenceManifest (kernel_version) and into run-pack
# failure records written by the runner.
# A change to hashing, ordering or rationale text requires an increment.

KERNEL_VERSION: str = "0.1.0"

# Storage format version for the audit log and failure record files.
# These files are not covered by the evidence manifest.
STORAGE_FORMAT_VERSION: str = "1.0.0"
