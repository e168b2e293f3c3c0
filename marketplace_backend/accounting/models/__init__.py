# accounting/models/__init__.py

from accounting.models.chart import ChartOfAccounts
from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine

__all__ = ["ChartOfAccounts", "Account", "JournalEntry", "JournalEntryLine"]
