"""Core domain logic for medication dosing and sick-day recovery tracking.

This package contains the dosing rules, the recovery protocol state machine
and adherence calculations, isolated from storage and presentation so they
are easy to test and reason about.
"""
