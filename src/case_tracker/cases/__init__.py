"""
Case subsystem.

Components:
- models.py: data structures (Case, Task, CaseStatus) and pure merge functions
- events.py: domain events emitted by mutations (webhook payload shape)
- snapshot.py: JSON snapshot codec + export/import files
- store.py: CaseStore, the owner of the case collection
"""
