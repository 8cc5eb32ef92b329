"""netreach: symbolic packet reachability and loop detection over state graphs."""
