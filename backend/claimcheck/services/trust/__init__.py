# Trust Services
#
# Pure, synchronous building blocks of the verification pipeline.
# They never touch the network and never raise on bad evidence:
# - Which tier a source belongs to (source_classifier)
# - What a claim's verdict and confidence are (verdict_aggregator)
