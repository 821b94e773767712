"""
Scheduling Services Module

Resource availability and slot-matching engine:
- Time grid and business hours (time_grid.py)
- Resource kinds, slot states and events (models.py)
- Store interface (store.py) and its Frappe implementation (frappe_store.py)
- Availability matrix (matrix.py)
- Client slot resolution and booking checks (resolver.py)
- Dual-service start times (dual_finder.py)
- Multi-day scans (date_scanner.py)
- Available staff lookup (staff_lookup.py)
- Per-slot diagnostics (diagnostics.py)
- Rolling availability window (rolling_window.py)
- Capacity consumption and audit trail (ledger.py)
- Retry policy (retry.py)
- Settings (settings.py) and scheduled tasks (tasks.py)
"""
