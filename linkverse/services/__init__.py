"""Domain services: data gateway, session, enrichment, links, account and export."""
