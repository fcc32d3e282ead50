from .tenancy import Site, Department, Grant, FinanceDepartmentAccess
from .auth import User, SessionToken, ApiKey, AgentApiKey
from .budgets import Vendor, Budget, BudgetAllocation
from .checkins import Client, CheckIn, CheckinNote
from .forum import ForumCategory, ForumTopic, ForumPost
from .security import SecurityEvent

__all__ = [
    'Site', 'Department', 'Grant', 'FinanceDepartmentAccess',
    'User', 'SessionToken', 'ApiKey', 'AgentApiKey',
    'Vendor', 'Budget', 'BudgetAllocation',
    'Client', 'CheckIn', 'CheckinNote',
    'ForumCategory', 'ForumTopic', 'ForumPost',
    'SecurityEvent',
]
