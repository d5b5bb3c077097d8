from .client import NOT_CONFIGURED, SheetsClient, SheetsData, SubmitOutcome

__all__ = ["NOT_CONFIGURED", "SheetsClient", "SheetsData", "SubmitOutcome"]
