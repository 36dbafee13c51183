"""
Billing app.

Stripe checkout, subscription management and webhook reconciliation of
customers, subscriptions, invoices and payments into the local database.
"""
