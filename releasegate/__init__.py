"""releasegate: release decisions, versioning and task gating for VCS projects."""
