"""EduXperience onboarding backend

Marks `eduxperience` as a proper Python package so imports like
`from eduxperience.onboarding.pending import PendingSubmissionStore` work
reliably in all environments (including Docker images).
"""
