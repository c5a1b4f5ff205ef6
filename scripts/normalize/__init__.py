"""
Data normalization modules.

Raw rows from every dataset are converted to a common record schema:
1. Field guessing picks district, location, notes and year text by alias lists
2. District text is resolved against Taipei's 12 districts
3. Mixed ROC/Gregorian year text is classified into a year period
4. The pieces are assembled into an immutable NormalizedRecord
"""
