"""
Advisory fetchers

One source module per upstream feed, a registry to look them up, and the
AdvisoryFetcher that combines them into a single per-country refresh.
"""
