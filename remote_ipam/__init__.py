"""Remote IPAM delegation: CNI plugin client and HTTP allocation server."""
