"""
crux_audit/domain package marker.
"""
