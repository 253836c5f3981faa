"""
Persistence runtime for the parts inventory database.

The application's CRUD call sites sit on top of this package:
- Schema generation from the `InventoryDb` aggregate (idempotent DDL)
- Record <-> parameter / row mapping
- Predicate translation for filtered queries
- The async `StorageProvider` facade
"""
