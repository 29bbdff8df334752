"""
Bucket boundaries, aggregators and the batcher choosing between them.
"""
