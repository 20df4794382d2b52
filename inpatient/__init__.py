"""Inpatient bed management application.

Bed catalog, occupancy ledger, the allocation services that keep the
two consistent, and the read-only reporting built on top of them.
"""
