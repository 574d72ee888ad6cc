"""Media probing and VMAF quality scoring."""
