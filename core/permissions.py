# ============================================
# PERMISSION VOCABULARY
# ============================================
# Permission strings are "<resource>.<action>". Roles are owner-defined
# bundles of these strings, scoped to one workspace.

ALL_PERMISSIONS = "*"  # owner / platform-admin sentinel

PERMISSIONS = [
    # Properties
    "properties.view", "properties.create", "properties.edit", "properties.delete",

    # Rooms
    "rooms.view", "rooms.create", "rooms.edit", "rooms.delete",

    # Tenants
    "tenants.view", "tenants.create", "tenants.edit", "tenants.delete",

    # Payments
    "payments.view", "payments.create", "payments.edit", "payments.delete",

    # Bills
    "bills.view", "bills.create", "bills.edit", "bills.delete",

    # Expenses
    "expenses.view", "expenses.create", "expenses.edit", "expenses.delete",

    # Meter Readings
    "meter_readings.view", "meter_readings.create", "meter_readings.edit",

    # Complaints
    "complaints.view", "complaints.create", "complaints.edit", "complaints.resolve",

    # Notices
    "notices.view", "notices.create", "notices.edit", "notices.delete",

    # Visitors
    "visitors.view", "visitors.create", "visitors.edit",

    # Reports
    "reports.view", "reports.export",

    # Exit Clearance
    "exit_clearance.initiate", "exit_clearance.process", "exit_clearance.approve",

    # Approvals
    "approvals.view", "approvals.process",

    # Staff
    "staff.view", "staff.create", "staff.edit", "staff.delete",

    # Settings
    "settings.view", "settings.edit",

    # Profile (tenant portal)
    "profile.view", "profile.edit",
]


# ============================================
# TENANT PORTAL: fixed, never role-driven
# ============================================
TENANT_PERMISSIONS = frozenset([
    "profile.view",
    "profile.edit",
    "payments.view",
    "complaints.view",
    "complaints.create",
    "notices.view",
])


# ============================================
# DEFAULT STAFF ROLES (seeded per owner)
# ============================================
DEFAULT_ROLE_TEMPLATES = {

    # =====================================================
    # MANAGER: full operational access
    # =====================================================
    "Manager": [
        "properties.view", "properties.edit",
        "rooms.view", "rooms.create", "rooms.edit", "rooms.delete",
        "tenants.view", "tenants.create", "tenants.edit", "tenants.delete",
        "payments.view", "payments.create", "payments.edit", "payments.delete",
        "bills.view", "bills.create", "bills.edit",
        "expenses.view", "expenses.create", "expenses.edit", "expenses.delete",
        "meter_readings.view", "meter_readings.create", "meter_readings.edit",
        "complaints.view", "complaints.create", "complaints.edit", "complaints.resolve",
        "notices.view", "notices.create", "notices.edit", "notices.delete",
        "visitors.view", "visitors.create", "visitors.edit",
        "reports.view", "reports.export",
        "exit_clearance.initiate", "exit_clearance.process", "exit_clearance.approve",
        "approvals.view", "approvals.process",
        "staff.view",
    ],

    # =====================================================
    # ACCOUNTANT: bills, payments, expenses, reports
    # =====================================================
    "Accountant": [
        "properties.view",
        "rooms.view",
        "tenants.view",
        "payments.view", "payments.create", "payments.edit",
        "bills.view", "bills.create", "bills.edit",
        "expenses.view", "expenses.create", "expenses.edit", "expenses.delete",
        "reports.view", "reports.export",
        "approvals.view",
    ],

    # =====================================================
    # CARETAKER: day-to-day operations
    # =====================================================
    "Caretaker": [
        "properties.view",
        "rooms.view", "rooms.edit",
        "tenants.view", "tenants.create", "tenants.edit",
        "meter_readings.view", "meter_readings.create", "meter_readings.edit",
        "complaints.view", "complaints.create", "complaints.edit", "complaints.resolve",
        "visitors.view", "visitors.create", "visitors.edit",
        "notices.view",
        "exit_clearance.initiate", "exit_clearance.process",
        "approvals.view",
    ],

    # =====================================================
    # RECEPTIONIST: front desk
    # =====================================================
    "Receptionist": [
        "properties.view",
        "rooms.view",
        "tenants.view",
        "visitors.view", "visitors.create", "visitors.edit",
        "complaints.view", "complaints.create",
        "notices.view",
    ],
}
