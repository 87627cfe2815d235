"""
                        Services Module

External collaborators with the hybrid architecture pattern.
Each service has Mock (development) and Real (production) implementations.

Services:
    - fulfillment: pizza factory order forwarding
"""
