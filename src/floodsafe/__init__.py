"""floodsafe - hazard-aware routing and live rerouting."""
