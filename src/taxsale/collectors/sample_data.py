"""
Synthetic Tax Sale Listings

Deterministic sample rows shaped like the St. Mary's County listing table.
Used only when a source explicitly opts in to sample data.
"""
from typing import Any, Dict, List


def generate_sample_records(count: int = 10, tax_year: int = 2023) -> List[Dict[str, Any]]:
    """
    Build `count` synthetic listing rows.

    Rows carry the same column names as the live table so they flow through
    the same standardization path. Every row is tagged with "Sample": True.
    """
    records = []
    for i in range(1, count + 1):
        records.append({
            'Tax Acct#': f"STM{100000 + i}",
            'Owner': f"Sample Owner {i}",
            'Address': f"{1000 + i} Main Street, Leonardtown, MD 20650",
            'Amount Due': f"{2500 + i * 550:,.2f}",
            'Land Value': 100000 + i * 25000,
            'Improvement Value': 150000 + i * 30000,
            'Total Value': 250000 + i * 55000,
            'Tax Year': tax_year,
            'Status': 'Delinquent',
            'Zoning': 'Commercial' if i % 3 == 0 else 'Residential',
            'Acreage': f"{0.5 + i * 0.2:.1f} ACRES",
            'Sample': True,
        })
    return records
