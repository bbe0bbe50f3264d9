# fiducialkit

Building blocks for detecting square fiducial markers of the ArUco kind:
geometry of quadrilateral candidates, threshold selection and image-size
planning, and tracking of markers from one frame to the next. The only
runtime dependency is NumPy.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Modules

### `fiducialkit.candidates`

- `DetectedMarker`: a dataclass with `id`, `corners`, `dict_info` and
  `contour`.
- `Match`: a frozen dataclass with `query_idx`, `train_idx` and `distance`.
- `perimeter(points)`: sum of the closed polygon's sides, each truncated to
  an integer.
- `sort_anticlockwise(candidates)`: swaps the second and fourth corners of
  each candidate whose third corner lies to the left of its first edge.
- `enlarge_candidate(points, fact)`: pushes the four corners of a candidate
  found on an eroded image outward by `fact` pixels.
- `interpolate_line(points)`: least-squares line `(a, b, c)` with
  `a*x + b*y + c = 0`; `cross_point(line1, line2)` intersects two such lines.
- `filter_ambiguous_query(matches)`: keeps the closest match for each query
  index.
- `remove_duplicates(markers)`: sorts by id and, where two detections share
  id and dictionary, drops the one with the smaller perimeter.

### `fiducialkit.thresholding`

- `otsu(histogram)`: Otsu's threshold for a 256-bin histogram, or -1 when no
  threshold splits it into two populated classes.
- `image_histogram(image, histogram=None)`: grey-level histogram of an 8-bit
  image, optionally added to an existing one.
- `KeyPoint` and `assign_class_fast(image, keypoints, window)`: classify
  keypoints by the binarised window around them.
- `threshold_window_sizes`, `min_marker_size_pix`, `low_res_size`,
  `pyramid_sizes` and `marker_warp_size`: the size rules that plan a
  detection pass.

### `fiducialkit.tracking`

- `MarkerTracker(min_detections)`: `update(detected, candidates)` takes the
  markers labelled in a frame and the rejected candidates. It returns the
  markers, with any recovered ones added, and the candidates it did not
  use. A marker is recovered when it was seen at least `min_detections`
  times recently and a candidate of similar size lies inside its previous
  outline. `detection_count(marker_id)` reports the running count.
- `best_rotation(previous, corners)`: the left rotation (0-3) of `corners`
  whose first edge best follows the previous first edge.
- `refine_corners_with_contour(corners, contour)`: fits lines to the contour
  between corners and intersects them.
- `min_marker_size(markers, width, height)`: the smallest marker perimeter
  relative to four times the larger image side.

## Example

```python
from fiducialkit.candidates import perimeter, sort_anticlockwise
from fiducialkit.thresholding import otsu, threshold_window_sizes

square = [(0, 0), (10, 0), (10, 10), (0, 10)]
perimeter(square)                      # 40
sort_anticlockwise([square])           # corners already in order, unchanged

histogram = [0] * 256
histogram[50] = 100
histogram[200] = 100
otsu(histogram)                        # 51

threshold_window_sizes(-1, 0, 1920)    # [15]
```

## What the package does not do

The package has no complete detection pipeline. It does not read images,
find contours, warp candidates or decode marker ids from a dictionary. It
does not estimate camera or marker poses, hold marker-map layouts, or
handle camera calibration. It provides no command-line program. It supplies
the geometric, thresholding and tracking steps that such a pipeline would
call.

## Running the tests

```
pytest
```