# Overview: Enumerated values shared by the store, workflows and routes.

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_SELLER = "SELLER"
ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_SELLER)
ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN)

SUBSCRIPTION_STATUSES = ("ACTIVE", "PAST_DUE", "CANCELLED")
MEASUREMENT_UNITS = ("UNIT", "KG", "GRAM", "LITER")

PAYMENT_CASH = "CASH"
PAYMENT_METHODS = (PAYMENT_CASH, "CARD", "TRANSFER")

DISCOUNT_FIXED = "FIXED"
DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_TYPES = (DISCOUNT_FIXED, DISCOUNT_PERCENTAGE)

# Sale lifecycle; a missing status means COMPLETED
SALE_COMPLETED = "COMPLETED"
SALE_CANCELLATION_REQUESTED = "CANCELLATION_REQUESTED"
SALE_CANCELLED = "CANCELLED"

TASK_PENDING = "PENDING"
TASK_COMPLETED = "COMPLETED"
TASK_STATUSES = (TASK_PENDING, TASK_COMPLETED)
TASK_FREQUENCIES = ("DAILY",)

NOTIFICATION_LOW_STOCK = "LOW_STOCK"
NOTIFICATION_SYSTEM = "SYSTEM"

# Well-known bootstrap account, seeded whenever the users collection is empty
BOOTSTRAP_ADMIN_ID = "super-admin-1"
BOOTSTRAP_ADMIN_USERNAME = "superadmin"
BOOTSTRAP_ADMIN_NAME = "System Owner"
