"""
Placement Kernel

Business-rule core for student/company part-time work placements:
- Contract lifecycle with workload ceilings
- Change proposals negotiated on active contracts
- Offers, applications and the acceptance cascade
- Verified caller capabilities instead of asserted roles
"""

__version__ = "0.1.0"
