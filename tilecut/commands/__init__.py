"""The inspect, cut, stitch and validate commands."""