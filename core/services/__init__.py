# Tenant-scoped domain services; every function takes the tenant first.
