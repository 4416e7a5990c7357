"""outreach/ -- Contact-us messages, feedback, and newsletter subscriptions.

Layer rule: outreach/ imports only stdlib, third-party libraries, and core/.
"""
