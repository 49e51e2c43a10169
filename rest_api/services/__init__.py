"""
Services module for business logic.

CLEAN ARCHITECTURE:
- domain/: Application services (business logic) - USE THESE
- crud/: Tenant and branch scoped repositories
- events/: Transactional outbox and its processor
- integrations/: FCM push sender, notification dispatcher, Mandao client
- permissions/: Staff delegation checks

Usage:
    from rest_api.services.domain import OrderService
    service = OrderService(db)
    orders = service.list_orders(tenant_id, branch_id)
"""
