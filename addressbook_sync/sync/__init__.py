"""
addressbook_sync.sync - Synchronization core

Contains the remote data models, the field mapper, the membership index
and the sync engine.
"""
