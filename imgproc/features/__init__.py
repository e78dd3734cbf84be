"""Feature extraction: an alternative filter set, a Canny variant and Harris corner detection."""