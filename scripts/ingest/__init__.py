"""
Data ingestion modules for open-data datasets.

Each dataset is fetched by an ingestor that:
1. Requests every page of the dataset from the open-data API
2. Keeps the raw rows in memory and optionally saves them to data/sources/{id}/raw/
3. Updates manifest.json with ingestion metadata
"""
