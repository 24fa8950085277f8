"""
One Stop Finance - Core Package

Personal finance tracking: accounts, income/expense transactions
entered manually, from a natural-language prompt, or from a receipt photo.

DESIGN PRINCIPLES:
1. Balances are exact - decimal in Python, integer cents in the database
2. A transaction and its balance update commit together or not at all
3. AI output is untrusted text - parse strictly, validate, then use
4. Every service returns a ServiceResult - no exception reaches the UI
5. Every step is auditable
"""

__version__ = "1.0.0"
__author__ = "One Stop Finance Team"
