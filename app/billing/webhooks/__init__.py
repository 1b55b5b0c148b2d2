"""
Razorpay webhook intake: signature verification, decoding and the
reconciliation engine that applies events to local billing state.
"""
