"""
messenger-gateway - relay Messenger conversations to an AG-UI agent.
"""

__version__ = "0.3.0"
__logo__ = "💬"
