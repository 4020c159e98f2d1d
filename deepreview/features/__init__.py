"""
Features Module - Self-contained feature units.

- journal: entries and the local entry store
- analysis: AI analysis gateway and its providers
"""
