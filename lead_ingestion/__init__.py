"""
lead_ingestion -- CSV staging pipeline.

Raw CSV text -> normalized staging rows -> validated batch -> merged leads.
"""
