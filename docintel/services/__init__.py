"""Business services: ingestion, extraction, matching, jobs and pinning."""
